"""
Base exceptions for cryptboot.

This module defines the hierarchy of exceptions used by cryptboot.
"""
from typing import Optional


class CryptbootError(Exception):
    """Base exception for cryptboot errors"""
    pass


class ConfigError(CryptbootError):
    """Exception raised when the configuration cannot be loaded"""
    pass


class InvalidDeviceError(CryptbootError):
    """Exception raised when a device does not resolve to a block device"""
    pass


class InvalidMountpointError(CryptbootError):
    """Exception raised when a mountpoint is not an existing directory"""
    pass


class CommandFailedError(CryptbootError):
    """
    Exception raised when an external tool ran but reported failure.

    Attributes:
        operation: Short name of the failed operation (e.g. "cryptsetup open")
        returncode: Exit status of the external command, if known
    """
    def __init__(self, message: str, operation: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.operation = operation
        self.returncode = returncode


class EncryptionError(CommandFailedError):
    """Exception raised when cryptsetup fails to open or close a device"""
    pass


class MountError(CommandFailedError):
    """Exception raised when there's an error in mounting or unmounting"""
    pass


class BootloaderError(CommandFailedError):
    """Exception raised when grub configuration or installation fails"""
    pass


class SigningError(CommandFailedError):
    """Exception raised when sbctl fails"""
    pass
