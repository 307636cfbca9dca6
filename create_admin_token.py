import sys
from app.core.security import create_access_token
from app.core.enums import UserRole


def main():
    if len(sys.argv) < 2:
        print("Usage: python create_admin_token.py <admin_id> [expires_minutes]")
        sys.exit(1)

    admin_id = sys.argv[1].strip()
    if not admin_id:
        print("Error: admin id cannot be empty")
        sys.exit(1)

    expires = None
    if len(sys.argv) > 2:
        try:
            expires = int(sys.argv[2])
        except ValueError:
            print(f"Error: expires_minutes must be an integer, got '{sys.argv[2]}'")
            sys.exit(1)

    token = create_access_token(admin_id, UserRole.ADMIN, expires_minutes=expires)
    print(f"Admin token for '{admin_id}':")
    print(token)
    sys.exit(0)


if __name__ == "__main__":
    main()
