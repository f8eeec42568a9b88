"""
cryptboot - Encrypted boot partition management tool

This package unlocks a LUKS encrypted boot partition, mounts it together with
the EFI system partition, and keeps GRUB and Secure Boot signatures up to date.
"""

__version__ = "0.1.0"
