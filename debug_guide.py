# debug_guide.py
import asyncio
import json

from cultural_guide.orchestrator import generate_for_session, load_behavioral_profile
from cultural_guide.session import SessionStore


async def main():
    store = SessionStore()
    session = store.create()
    session.update_preferences(
        destination="Kyoto, Japan",
        user_preferences="Traditional crafts, tea ceremonies and seasonal food.",
    )

    # Loads the live Qloo profile when QLOO_API_KEY is set, the sample one otherwise
    await load_behavioral_profile(session)
    print("➡️ Behavioral profile:\n")
    print(json.dumps(session.view_state(True)["behaviorInsights"], indent=2))

    await generate_for_session(session)
    print("\n➡️ Recommendations:\n")
    print(json.dumps(session.view_state(True)["recommendations"], indent=2, ensure_ascii=False))


if __name__ == "__main__":
    asyncio.run(main())
