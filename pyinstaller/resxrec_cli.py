"""
Run PyInstaller against this script file to build a standalone ``resxrec``
executable, e.g. for the maintenance workstations without Python.
Make sure that resxrec is installed into the Python environment before.
"""
from resxrec.__main__ import main as _main

_main('__main__')
