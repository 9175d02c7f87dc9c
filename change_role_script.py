import asyncio
import sys

from app.core.exceptions import PortalError
from app.core.firebase_init import initialize_firebase
from app.database.collections import COLLECTIONS
from app.database.database_service import database_service
from app.models.user import UserRole, VerificationStatus
from app.services.sync_manager import SyncManager

VALID_ROLES = [role.value for role in UserRole]


async def change_user_role(sync: SyncManager, uid: str, new_role: str) -> bool:
    """Change the role on a user's profile. Admins are also marked verified."""
    profile = await sync.get(COLLECTIONS['users'], uid)
    if profile is None:
        print(f"User {uid} not found")
        return False

    print(f"Found user: {profile.email} (current role: {profile.role})")

    changes = {"role": new_role}
    if new_role == UserRole.ADMIN.value:
        changes["status"] = VerificationStatus.VERIFIED.value

    try:
        await sync.update(COLLECTIONS['users'], uid, changes)
    except PortalError as e:
        print(f"Failed to update user role: {str(e)}")
        return False

    print(f"✅ Successfully changed user {uid} role to {new_role}")
    print(f"📧 Email: {profile.email}")
    print(f"🔄 Old role: {profile.role} → New role: {new_role}")
    return True


async def list_users(sync: SyncManager):
    """List all users to help find the uid"""
    users = await sync.get_all(COLLECTIONS['users'])

    print("\n📋 Current Users:")
    print("-" * 60)
    for user in users:
        print(f"UID: {user.id}")
        print(f"Email: {getattr(user, 'email', None) or 'N/A'}")
        print(f"Role: {getattr(user, 'role', None) or 'N/A'}  Status: {getattr(user, 'status', None) or 'N/A'}")
        print(f"Name: {getattr(user, 'fullName', None) or ''}")
        print("-" * 60)


async def main():
    if len(sys.argv) < 2:
        print("Usage:")
        print("  python change_role_script.py list               # List all users")
        print("  python change_role_script.py <uid> <new_role>   # Change user role")
        print("")
        print("The first admin account has to be promoted this way; later admins")
        print("are created from the admin accounts page.")
        print("")
        print(f"Valid roles: {', '.join(VALID_ROLES)}")
        return

    if not initialize_firebase():
        print("❌ Firebase is not configured (see FIREBASE_SERVICE_ACCOUNT_PATH)")
        return

    sync = SyncManager(database_service)

    if sys.argv[1] == "list":
        await list_users(sync)
        return

    if len(sys.argv) < 3:
        print("Error: Please provide both uid and new_role")
        print("Example: python change_role_script.py Xy12Ab34 admin")
        return

    uid = sys.argv[1]
    new_role = sys.argv[2].lower()

    if new_role not in VALID_ROLES:
        print(f"Error: Invalid role '{new_role}'. Valid roles are: {', '.join(VALID_ROLES)}")
        return

    print(f"🔄 Changing user {uid} role to {new_role}...")
    if await change_user_role(sync, uid, new_role):
        print("\n✅ Role change completed successfully!")
        print("The user's open sessions pick up the new role on their next profile update.")
    else:
        print("\n❌ Role change failed!")


if __name__ == "__main__":
    asyncio.run(main())
