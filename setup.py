from setuptools import setup

__version__ = "0.1.0"


def get_long_desc():
    return open('README.rst', 'r').read()


def get_requirements():
    lines = open('requirements.txt', 'r').readlines()
    reqs = [line.strip() for line in lines if line.strip()]
    return reqs


setup(
    name="crapi",
    version=__version__,
    packages=["crapi"],
    description="crapi translates Kubernetes custom resources to and from "
                "cloud REST API objects, driven by reference mappings in the CRD schema",
    long_description=get_long_desc(),
    long_description_content_type="text/x-rst",
    keywords=["Kubernetes", "operator", "CRD", "OpenAPI", "translate",
              "translator", "mapping", "references"],
    install_requires=get_requirements(),
    extras_require={"test": ["pytest"]},
    python_requires=">=3.8",
    classifiers=["Development Status :: 4 - Beta",
                 "Intended Audience :: Developers",
                 "Intended Audience :: Information Technology",
                 "License :: OSI Approved :: MIT License",
                 "Operating System :: OS Independent",
                 "Programming Language :: Python :: 3 :: Only",
                 "Programming Language :: Python :: 3.8",
                 "Programming Language :: Python :: 3.9",
                 "Programming Language :: Python :: 3.10",
                 "Programming Language :: Python :: 3.11",
                 "Topic :: Software Development",
                 "Topic :: Software Development :: Libraries",
                 "Topic :: Software Development :: Libraries :: Python Modules",
                 "Topic :: Utilities",
                 "Typing :: Typed"],
    license="MIT"
)
