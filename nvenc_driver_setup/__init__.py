"""NVENC Driver Setup - Main package

Installs the NVIDIA proprietary driver with NVENC/NVDEC support on
Ubuntu, from the distribution archive or NVIDIA's official installer.
"""

__version__ = "1.0.0"
__package_name__ = "nvenc-driver-setup"
