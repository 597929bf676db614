from __future__ import annotations


class BjfitError(Exception):
    """Base class for errors that abort a whole run."""


class ConfigurationError(BjfitError):
    """Missing directory, dataset file, executable or malformed config."""


class DatasetFormatError(BjfitError):
    """The reference dataset is empty, corrupt or inconsistent with its structures."""
