"""
kpatch_errors.py - Failure taxonomy for krakpatch.
Every error carries the process exit code the CLI terminates with, so scripted
callers can branch on the failure kind without parsing messages.
"""


class KrakPatchError(Exception):
    """Base class for every fatal krakpatch failure."""
    exit_code = 2
    show_usage = False


class NoChanges(KrakPatchError):
    exit_code = 1


class Interrupted(KrakPatchError):
    exit_code = 8


class UsageError(KrakPatchError):
    exit_code = 10
    show_usage = True


class ExtractionFailed(KrakPatchError):
    exit_code = 11


class DiffExecutionFailed(KrakPatchError):
    exit_code = 12


class PatchApplicationFailed(KrakPatchError):
    exit_code = 13


class PackagingFailed(KrakPatchError):
    exit_code = 14


class DisassemblyFailed(KrakPatchError):
    exit_code = 15


class AssemblyFailed(KrakPatchError):
    exit_code = 16


class ScratchAllocationFailed(KrakPatchError):
    exit_code = 17


# -- Input validation (bad arguments detected before any scratch work)

class InputValidationError(KrakPatchError):
    exit_code = 20
    show_usage = True


class OriginalNotFile(InputValidationError):
    exit_code = 20


class OriginalInvalidExtension(InputValidationError):
    exit_code = 21


class OriginalWithoutClasses(InputValidationError):
    exit_code = 22


class EditedNotDirectory(InputValidationError):
    exit_code = 30


class EditedWithoutClasses(InputValidationError):
    exit_code = 31


class BundleNotFile(InputValidationError):
    exit_code = 40


class BundleEmpty(InputValidationError):
    exit_code = 41
