# SPDX-License-Identifier: LGPL-3.0-or-later
from setuptools import setup, find_packages

setup(
    name="libvirt2kvm",
    version="0.1.0",
    packages=find_packages(include=["libvirt2kvm", "libvirt2kvm.*"]),
    python_requires=">=3.9",
    install_requires=[l.strip() for l in open("requirements.txt", encoding="utf-8") if l.strip() and not l.startswith("#")],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["libvirt2kvm=libvirt2kvm.__main__:main"]},
)
