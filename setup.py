import os
from setuptools import setup, find_packages

import tflib


def read(file_name: str) -> str:
    with open(os.path.join(os.path.dirname(__file__), file_name)) as of:
        return of.read()


def requirements(file_name: str) -> list:
    return [line.strip() for line in read(file_name).splitlines() if line.strip() and not line.startswith("#")]


setup(
    name="tf-provider-aws",
    version=tflib.__version__,
    description="AWS provider callbacks: SageMaker Workforce, S3 objects and tags, EFS file systems",
    license=tflib.__license__,
    packages=find_packages(exclude=["test", "test.*"]),
    long_description=read("README.md"),
    long_description_content_type="text/markdown",
    entry_points={"console_scripts": ["tf-provider-aws = tf_provider_aws.__main__:main"]},
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.9",
    install_requires=requirements("requirements.txt"),
    extras_require={"test": requirements("requirements-test.txt")},
    classifiers=[
        # Current project status
        "Development Status :: 4 - Beta",
        # Audience
        "Intended Audience :: System Administrators",
        "Intended Audience :: Information Technology",
        # License information
        "License :: OSI Approved :: Apache Software License",
        # Supported python versions
        "Programming Language :: Python :: 3.9",
        # Supported OS's
        "Operating System :: POSIX :: Linux",
        "Operating System :: Unix",
        # Extra metadata
        "Environment :: Console",
        "Natural Language :: English",
        "Topic :: Utilities",
    ],
    keywords="cloud infrastructure-as-code aws",
)
