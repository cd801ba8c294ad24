"""
Assign a Twilio Number to a User
================================
Sets the number a user dials out from, creating their VoIP settings row
if they have none yet. Numbers are stored in E.164.

Usage (with the package installed, e.g. `pip install -e .`):
    python scripts/assign_phone_to_user.py --email jane@seodons.co.uk --phone "+44 20 7946 0958"
    python scripts/assign_phone_to_user.py --email jane@seodons.co.uk --phone 02079460958 --caller-id +442079460000

Flags:
    --email      EMAIL   (required) The user's email address
    --phone      NUMBER  (required) Twilio number to assign
    --caller-id  NUMBER  (optional) Caller id shown to callees. Default: the assigned number
"""

import argparse
import sys

from crm.core.database import session_scope
from crm.services.phone import InvalidPhoneNumber
from crm.services.voip_settings import UserNotFound, assign_phone_number


def main() -> int:
    parser = argparse.ArgumentParser(description="Assign a Twilio phone number to a CRM user.")
    parser.add_argument("--email", required=True, help="The user's email address (required)")
    parser.add_argument("--phone", required=True, help="Twilio number to assign (required)")
    parser.add_argument("--caller-id", default=None, help="Caller id number (optional)")
    args = parser.parse_args()

    try:
        with session_scope() as db:
            voip = assign_phone_number(db, args.email, args.phone, args.caller_id)
    except UserNotFound:
        print(f"  [ERROR] No user with email {args.email}")
        return 1
    except InvalidPhoneNumber as e:
        print(f"  [ERROR] {e}")
        return 1

    print(f"  [OK] {args.email} now calls from {voip.assigned_phone_number} (caller id {voip.caller_id_number})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
