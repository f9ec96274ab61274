#encoding="utf-8"
import setuptools

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    name="PyEcuConfig",
    version="0.0.1",
    author="Sgnes",
    author_email="sgnes0514@gmai.com",
    description="Parse ECU description files and read/write logging configurations",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    install_requires=[

      ],
    extras_require={
        "test": ["pytest"],
    },
    packages=[
        'ecuconfig'
        ],
    package_dir={
        'ecuconfig': 'src'
        },

    python_requires='>=3.9',
)
