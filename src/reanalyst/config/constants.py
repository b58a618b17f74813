"""Configuration constants.

Fixed names dictated by the ReScript toolchain and its npm layout. These are
not user-configurable; tunables live in models.py.
"""

# =============================================================================
# Project Layout
# =============================================================================

PROJECT_MARKERS = ("rescript.json", "bsconfig.json")
"""Files whose presence marks a directory as a ReScript project root."""

NODE_MODULES = "node_modules"
"""Dependency installation directory name."""

RESCRIPT_PACKAGE = "rescript"
"""npm package that ships the compiler and tools."""

PLATFORM_PACKAGE_SCOPE = "@rescript"
"""Scope of the per-platform companion packages (@rescript/<os>-<arch>)."""

PLATFORM_BIN_MANIFEST = "bin-paths.json"
"""Manifest inside a platform package mapping binary kinds to relative paths."""

COMPILER_INFO_PATH = ("lib", "bs", "compiler-info.json")
"""Build output file naming the bsc binary used for the last build."""

# =============================================================================
# Toolchain
# =============================================================================

TOOLS_BINARY = "rescript-tools.exe"
"""Binary providing the reanalyze and reanalyze-server subcommands."""

PLATFORM_PACKAGES_MIN_VERSION = "12.0.0-alpha.13"
"""First rescript release shipping binaries as per-platform packages."""

REANALYZE_SERVER_MIN_VERSION = "12.1.0"
"""First rescript release with the reanalyze-server subcommand."""

REANALYZE_SOCKET_FILENAME = ".rescript-reanalyze.sock"
"""Control socket the server creates in the monorepo root."""

SERVER_SUBCOMMAND = "reanalyze-server"

ANALYSIS_ARGS = ("reanalyze", "-json")

DISTRESS_SIGNATURE = "End_of_file"
"""reanalyze stderr text emitted when compiler artifacts are corrupted."""

# =============================================================================
# Diagnostics
# =============================================================================

WHOLE_FILE_END_LINE = 99999
"""End line used when reanalyze reports a whole-file issue (negative line)."""

REMOVABLE_SUFFIXES = (
    " is never used",
    " is never used and could have side effects",
    " has no side effects and can be removed",
)
"""Message endings that mark dead code safe to delete by removing its text."""

UNUSED_ARGUMENT_MARKER = "unused argument"
"""Report name fragment (case-insensitive) for suppressed unused-argument reports."""

SOURCE_EXTENSIONS = (".res", ".resi")
"""Files whose changes trigger an analysis in watch mode."""

# =============================================================================
# Subprocess I/O
# =============================================================================

STREAM_LINE_LIMIT = 1024 * 1024
"""Longest stderr/server output line read in one piece; longer lines are dropped."""
