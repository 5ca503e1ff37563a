"""
reset_data.py
-------------
Utility script to clear all stored data (users, organizations, vehicles,
rents, notifications) from the configured store file.

This script is designed for development and testing purposes.

Usage:
    $ python reset_data.py

After running this script, you can repopulate sample data by executing:
    $ python seeds.py
"""

from rentcycle import create_app, get_engine


def main():
    """Empty every collection of the configured store and persist it."""
    app = create_app()
    with app.app_context():
        store = get_engine(app).store
        store.clear()

    print(f"Store {store.path} has been cleared.")
    print("Tip: run `python seeds.py` to regenerate demo data.")


if __name__ == "__main__":
    main()
