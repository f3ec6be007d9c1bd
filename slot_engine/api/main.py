from fastapi import FastAPI
from slot_engine.api.routes.slots import router as slots_router

app = FastAPI(title="Slot Engine API")

@app.get("/health")
def health():
    return {"status": "ok"}

app.include_router(slots_router)
