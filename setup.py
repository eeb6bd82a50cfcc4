"""
Setup file.
"""

import os

from setuptools import find_packages, setup

URL = "https://github.com/kforge/kforge"
KEYWORDS = "kernel build qemu riscv aarch64 x86_64 toolchain bootloader orchestrator"
HERE = os.path.dirname(os.path.abspath(__file__))


def read_readme() -> str:
    path = os.path.join(HERE, "README.md")
    if not os.path.exists(path):
        return ""
    with open(path, encoding="utf-8") as f:
        return f.read()


if __name__ == "__main__":
    setup(
        name="kforge",
        version="0.1.0",
        description="Build and launch orchestrator for a multi-architecture kernel",
        long_description=read_readme(),
        long_description_content_type="text/markdown",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.10",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        install_requires=[
            "requests",
            "tqdm",
            "psutil",
        ],
        extras_require={
            "test": ["pytest"],
        },
        entry_points={
            "console_scripts": ["kforge=kforge.cli:main"],
        },
        include_package_data=True)
