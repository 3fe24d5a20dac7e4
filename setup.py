from setuptools import setup, find_packages
from codecs import open
from os import path

here = path.abspath(path.dirname(__file__))
name = "jtoolchain"
exec(open("jtoolchain/version.py").read())


# Get the long description from the README file
with open(path.join(here, "README.rst"), encoding="utf-8") as f:
    long_description = f.read()

try:
    with open(path.join(here, "requirements.txt"), encoding="utf-8") as f:
        pinned_reqs = f.readlines()
except FileNotFoundError:
    pinned_reqs = []


setup(
    name=name,
    version=__version__,
    python_requires=">=3.8",
    description="A Java toolchain resolver and JDK provisioner",
    long_description=long_description,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Build Tools",
        "Operating System :: MacOS :: MacOS X",
        "Operating System :: Microsoft :: Windows",
        "Operating System :: POSIX",
        "Programming Language :: Java",
        "Programming Language :: Python :: 3",
    ],
    keywords=[
        "foojay",
        "jbang",
        "jdk",
        "maven",
        "toolchains",
    ],
    packages=find_packages(exclude=["contrib", "docs", "tests"]),
    install_requires=pinned_reqs or [
        "click>=8.1",
        "colorama",
        "fasteners",
        "lxml",
        "psutil",
        "requests",
        "tqdm",
    ],
    dependency_links=[],
    extras_require={
        "test": ["coverage"],
    },
    entry_points={
        "console_scripts": [
            "jtoolchain=jtoolchain.__main__:main",
        ],
    },
)
