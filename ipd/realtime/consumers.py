import json
from channels.generic.websocket import AsyncWebsocketConsumer

from ipd.services.beds import BED_GROUP


class BedBoardConsumer(AsyncWebsocketConsumer):
    """Pushes bed occupancy changes to the ward bed board."""
    GROUP = BED_GROUP

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated):
            await self.close()
            return
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def bed_changed(self, event):
        # event: {"type": "bed.changed", "id": int, "bedNumber": "...", "status": "...", ...}
        await self.send(json.dumps(event))
