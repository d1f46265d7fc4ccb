"""
python -m build
twine upload dist/*
"""

from setuptools import setup, find_packages


def jamap_setup():
    with open("requirements.txt", "rt") as fp:
        install_requires = fp.read().strip().split("\n")

    about = {}
    with open("jamap/__about__.py", "rt") as fp:
        exec(fp.read(), about)  # pylint: disable=exec-used
    version = about["__version__"]

    setup(
        name="jamap",
        packages=find_packages(exclude=["tests", "tests.*"]),
        version=version,
        license="MIT",
        description=about["__description__"],
        long_description=open("README.rst").read(),
        long_description_content_type="text/x-rst",
        keywords=["JsonAPI", "JSON:API", "serialization", "Flask", "SqlAlchemy"],
        python_requires=">=3.8, <4",
        install_requires=install_requires,
        classifiers=[
            "Development Status :: 3 - Alpha",
            "License :: OSI Approved :: MIT License",
            "Intended Audience :: Developers",
            "Framework :: Flask",
            "Topic :: Software Development :: Libraries",
            "Programming Language :: Python :: 3.12",
            "Programming Language :: Python :: 3.11",
            "Programming Language :: Python :: 3.10",
            "Programming Language :: Python :: 3.9",
            "Programming Language :: Python :: 3.8",
        ],
        extras_require={"test": ["pytest>=7"]},
    )


jamap_setup()  # pragma: no cover
