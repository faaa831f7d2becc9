"""acmeproxy main entry point."""
from acmeproxy import main

if __name__ == '__main__':
    main.main()  # pragma: no cover
