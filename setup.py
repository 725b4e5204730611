from setuptools import setup, find_packages
import codecs
import os

here = os.path.abspath(os.path.dirname(__file__))

with codecs.open(os.path.join(here, "README.md"), encoding="utf-8") as fh:
    long_description = "\n" + fh.read()

VERSION = '0.1.0'
DESCRIPTION = 'GeoGebra MCP server'
LONG_DESCRIPTION = 'Drive GeoGebra constructions, CAS, exports and animations from MCP clients and a REST API'

# Setting up
setup(
    name="gebrai",
    version=VERSION,
    description=DESCRIPTION,
    long_description_content_type="text/markdown",
    long_description=long_description,
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pydantic>=2.0",
        "python-dotenv>=1.0.0",
        "loguru>=0.7.0",
        "typer>=0.12.5",
        "fastapi>=0.110.0",
        "uvicorn>=0.29.0",
        "mcp>=1.10,<2",
        "playwright>=1.40.0",
        "docstring-parser>=0.16",
    ],
    extras_require={
        'test': [
            'pytest>=8.0',
            'httpx>=0.27',
        ],
    },
    entry_points={
        'console_scripts': [
            'gebrai-mcp=gebrai.mcp_server:run',
            'gebrai-http=gebrai.web.run:run',
        ],
    },
    keywords=['python', 'geogebra', 'mcp', 'mathematics', 'education', 'AI'],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        "Operating System :: Unix",
        "Operating System :: MacOS :: MacOS X",
        "Operating System :: Microsoft :: Windows",
    ],
)
