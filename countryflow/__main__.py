"""Allow running the pipeline as a module: python -m countryflow."""

from countryflow.runner import main

if __name__ == "__main__":
    main()
