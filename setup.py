"""
python -m build
twine upload dist/*
"""

from setuptools import setup, find_packages


def sarest_setup():
    with open("requirements.txt", "rt") as fp:
        install_requires = fp.read().strip().split("\n")

    version = "0.1.0"

    setup(
        name="sarest",
        packages=find_packages(exclude=["tests"]),
        version=version,
        license="MIT",
        description="sarest : SqlAlchemy Flask-Restful query shaping and Swagger resource descriptors",
        long_description=open("README.rst").read(),
        keywords=["SqlAlchemy", "Flask", "REST", "Swagger"],
        python_requires=">=3.8, <4",
        install_requires=install_requires,
        classifiers=[
            "Development Status :: 3 - Alpha",
            "Intended Audience :: Developers",
            "Framework :: Flask",
            "Topic :: Software Development :: Libraries",
            "Environment :: Web Environment",
            "Programming Language :: Python :: 3",
        ],
        extras_require={"test": ["pytest>=7"]},
    )


sarest_setup()  # pragma: no cover
