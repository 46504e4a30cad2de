"""Allow `python -m upms_bootstrap`."""

from upms_bootstrap.cli import entrypoint

entrypoint()
