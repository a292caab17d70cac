"""License allow-list used when excluding copyleft extension modules."""

# SPDX identifiers known not to be GPL-family. Anything not listed is treated
# as potentially copyleft.
NON_GPL_LICENSES: frozenset[str] = frozenset(
    {
        "0BSD",
        "AFL-1.1",
        "AFL-1.2",
        "AFL-2.0",
        "AFL-2.1",
        "AFL-3.0",
        "Apache-1.0",
        "Apache-1.1",
        "Apache-2.0",
        "APSL-1.0",
        "APSL-1.1",
        "APSL-1.2",
        "APSL-2.0",
        "Artistic-2.0",
        "BSD-1-Clause",
        "BSD-2-Clause",
        "BSD-2-Clause-Patent",
        "BSD-3-Clause",
        "BSD-3-Clause-Clear",
        "BSD-4-Clause",
        "BSL-1.0",
        "bzip2-1.0.6",
        "CC0-1.0",
        "curl",
        "ISC",
        "libtiff",
        "MIT",
        "MIT-0",
        "MPL-1.0",
        "MPL-1.1",
        "MPL-2.0",
        "NCSA",
        "OLDAP-2.8",
        "OpenSSL",
        "PostgreSQL",
        "PSF-2.0",
        "Python-2.0",
        "TCL",
        "Unlicense",
        "W3C",
        "X11",
        "Zlib",
        "zlib-acknowledgement",
        "ZPL-2.1",
    }
)


def is_non_gpl_license(spdx: str) -> bool:
    """Whether an SPDX license identifier is on the non-GPL allow-list.

    :param spdx: SPDX identifier. Matching is exact.
    :returns: ``True`` if the identifier is allow-listed.
    """

    return spdx in NON_GPL_LICENSES
