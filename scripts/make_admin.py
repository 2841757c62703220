#!/usr/bin/env python3
# scripts/make_admin.py
import argparse

from branch_store import is_admin, set_admin
from db_mnemonic import get_engine


def main():
    ap = argparse.ArgumentParser(description='Grant or revoke administrator rights')
    ap.add_argument('user_id')
    ap.add_argument('--display-name')
    ap.add_argument('--revoke', action='store_true')
    args = ap.parse_args()

    engine = get_engine()
    set_admin(args.user_id, admin=not args.revoke, display_name=args.display_name, engine=engine)
    state = 'admin' if is_admin(args.user_id, engine=engine) else 'not admin'
    print(f'User {args.user_id} is now {state}.')


if __name__ == '__main__':
    main()
