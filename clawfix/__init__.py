"""ClawFix - diagnose OpenClaw installations and compose fix scripts."""

try:
    from clawfix._version import version as __version__
except ImportError:
    __version__ = "0.4.0"
