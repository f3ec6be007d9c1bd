#slot_engine\api\container.py
from slot_engine.container import slot_service
from slot_engine.core.service import SlotService


def get_slot_service() -> SlotService:
    return slot_service
