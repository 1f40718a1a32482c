"""Exception types raised by deblurlib.

Three kinds of failure are distinguished:

- **UsageError**: the command or dispatcher was invoked incorrectly
  (unknown method name, missing stack entries).
- **PreconditionError**: the kernel or image violates a documented shape
  constraint (even kernel size, multi-channel kernel, multi-frame input).
- **BuildConfigurationError**: the FFT backend is not available.

None of these are retried; numeric solves are deterministic given valid
inputs.
"""

__all__ = ["UsageError", "PreconditionError", "BuildConfigurationError"]


class UsageError(Exception):
    """Malformed invocation, such as an unknown deconvolution method."""


class PreconditionError(ValueError):
    """Input images violate a documented shape constraint."""


class BuildConfigurationError(RuntimeError):
    """A required numerical backend is unavailable."""
