from setuptools import setup, find_packages


setup(
    name="unitypack",
    version="0.1",
    packages=find_packages(include=["unitypack", "unitypack.*"]),
    description="Export whole projects to .unitypackage (gzip-compressed ustar) archives.",
    python_requires=">=3.9",
    install_requires=[
        "zstandard>=0.22.0",
    ],
    entry_points={
        "console_scripts": [
            "unitypack=unitypack.cli:main",
        ]
    },
)
