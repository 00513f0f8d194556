"""
Usage:
    python -m stackboot run --role web
"""
from stackboot.cli.stackbootctl import main

if __name__ == '__main__':
    main()
