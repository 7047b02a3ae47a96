# dynforms/routes/db.py
from fastapi import APIRouter
from dynforms.db.session import check_db_connection

router = APIRouter(prefix="/db", tags=["DB"])

@router.get("/ping")
def ping():
    ok = check_db_connection()
    return {"ok": ok}
