import logging
import datetime
from db_mongo import get_col

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("anima")

def write_audit(action, user, anima_id, before, after):
    get_col("audit_logs").insert_one({
        "ts": datetime.datetime.utcnow().isoformat() + "Z",
        "user": user, "action": action, "anima_id": anima_id,
        "before": before, "after": after
    })
