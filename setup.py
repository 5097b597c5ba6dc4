import os
import os.path
import setuptools # type: ignore

root_path = os.path.dirname(__file__)

with open(os.path.join(root_path, "README.md"), "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="eventscript",
    version="0.1.0",
    description="Event scripting engine for a turn based tactics game: trigger matching, condition evaluation and a resumable script interpreter.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(where="src"),
    package_dir={'': 'src'},

    package_data={
        'eventscript': ['py.typed'],
        'eventscript.data': ['*'],
    },
    include_package_data=True,
    zip_safe=False,
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    install_requires=[
        "numpy",
        "msgpack",
        "toml",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    python_requires='>=3.9',
    entry_points={
        'console_scripts': [
            'eventscript = eventscript.cli:main',
        ],
    },
)
