import asyncio, json, sys
import websockets

URL = sys.argv[1] if len(sys.argv) > 1 else "ws://127.0.0.1:8000/ws/versions"


async def main():
    async with websockets.connect(URL) as ws:
        # recv welcome
        print('recv:', await ws.recv())
        await ws.send(json.dumps({"type": "ping"}))
        async for raw in ws:
            msg = json.loads(raw)
            if msg.get("type") == "catalog":
                codes = [v["versionCode"] for v in msg["versions"]]
                print('catalog:', codes)
            else:
                print('recv:', msg)

asyncio.run(main())
