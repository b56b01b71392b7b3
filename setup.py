from setuptools import setup

setup(
    name="devbin",
    version="0.1.0",
    package_dir={"": "src"},
    py_modules=["devbin_links", "devbin_shell", "wt"],
    packages=["bunscript"],
    package_data={"bunscript": ["templates/*.template"]},
    entry_points={"console_scripts": ["bunscript=bunscript:main", "wt=wt:main"]},
    python_requires=">=3.10",
    extras_require={"test": ["pytest", "approvaltests"]},
)
