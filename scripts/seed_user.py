import sys, os, hashlib
# add project root (one level up from /scripts) to import path
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from db_mongo import get_col, ensure_indexes

def sha(s): return hashlib.sha256(s.encode("utf-8")).hexdigest()

if len(sys.argv) < 3:
    print("usage: python scripts/seed_user.py <email> <password> [role]")
    sys.exit(1)

email = sys.argv[1].strip().lower()
role = sys.argv[3] if len(sys.argv) > 3 else "admin"

ensure_indexes()
get_col("users").update_one(
    {"email": email},
    {"$set": {"email": email, "password_hash": sha(sys.argv[2]), "role": role}},
    upsert=True
)
print("seeded", email)
