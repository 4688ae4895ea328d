"""Basic Examination - Grade one answer end to end

This example wires the full pipeline against in-memory storage and grades
a single answer with a real model provider.

Key Features:
- Round-robin over two API keys for the same provider
- Credit top-up, admission and per-trial billing
- Best-result tracking across attempts
- Manual correction of a recorded result

Requirements:
    export ZHIPU_API_KEY=your_key_here
    (optional) export ZHIPU_API_KEY_2=second_key

Run with:
    python examples/basic_examination.py
"""

from dotenv import load_dotenv

import asyncio
import logging
import os

from examiner import (
    BackendPool,
    BusinessConfig,
    ExaminationService,
    GradeOutcome,
    InsufficientCreditError,
    MemoryStorage,
    OpenAICompatibleAdapter,
    PipelineSettings,
    Provider,
    Question,
    build_dispatcher,
    error_code,
)

GRADING_TEMPLATE = """You are grading an interview answer.

Question:
{}

Reference answer, split into three tiers:
{}

Candidate answer:
{}

Reply in exactly this format:
#### 最终评分
<digit: bit 0 set if tier 1 is covered, bit 1 for tier 2, bit 2 for tier 3>
<short explanation>
"""


async def main():
    """Run the basic examination example."""

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    if not os.getenv("ZHIPU_API_KEY"):
        print("⚠️  Please set ZHIPU_API_KEY environment variable")
        return

    print("📝 Examiner - Basic Examination Example")
    print("=" * 70)

    adapters = [OpenAICompatibleAdapter(Provider.ZHIPU, "glm-4-plus", name="zhipu#0")]
    if os.getenv("ZHIPU_API_KEY_2"):
        adapters.append(
            OpenAICompatibleAdapter(
                Provider.ZHIPU, "glm-4-plus", api_key=os.getenv("ZHIPU_API_KEY_2"), name="zhipu#1"
            )
        )

    storage = MemoryStorage()
    storage.add_question(
        Question(
            id=1,
            title="What is a mutex?",
            canonical_answer=(
                "Tier 1: a lock that gives one thread exclusive access to a resource\n"
                "Tier 2: lock/unlock must pair up; contention blocks waiters\n"
                "Tier 3: priority inversion and how priority inheritance fixes it"
            ),
        )
    )
    await storage.save_config(
        BusinessConfig(
            business_key="question_examine",
            model="glm-4-plus",
            unit_price=1,
            max_tokens=1000,
            temperature=0.1,
            prompt_template=GRADING_TEMPLATE,
            max_input=2000,
        )
    )

    settings = PipelineSettings.from_env()
    dispatcher = build_dispatcher(BackendPool(adapters), storage, storage, storage, settings)
    service = ExaminationService(storage, dispatcher, storage, timeout=settings.timeout)

    # Example 1: No credit yet
    print("\n\n💳 Example 1: Request without credit")
    print("-" * 70)
    try:
        await service.examine(user_id=7, question_id=1, answer_text="A lock.")
    except InsufficientCreditError as e:
        print(f"Rejected with code {error_code(e)}")

    # Example 2: Graded attempts
    print("\n\n✅ Example 2: Graded attempts")
    print("-" * 70)
    await storage.top_up(user_id=7, amount=100_000)

    answers = [
        "A lock so only one thread touches the data at a time.",
        "A lock for exclusive access. Every lock needs a matching unlock, and "
        "other threads block while it is held. High-priority threads can be "
        "stuck behind low-priority holders (priority inversion); priority "
        "inheritance boosts the holder to fix it.",
    ]
    for answer in answers:
        result = await service.examine(user_id=7, question_id=1, answer_text=answer)
        print(f"\nOutcome: {result.outcome.name}")
        print(f"Tokens: {result.tokens_consumed}, cost: {result.cost_amount}")
        print(f"Balance left: {await storage.balance(7)}")

    best = await service.question_result(user_id=7, question_id=1)
    print(f"\nBest result so far: {best.name}")

    # Example 3: Manual correction
    print("\n\n✏️  Example 3: Manual correction")
    print("-" * 70)
    await service.correct(user_id=7, question_id=1, outcome=GradeOutcome.INTERMEDIATE)
    results = await service.get_results_for_questions(user_id=7, question_ids=[1, 2])
    print(f"Results: { {qid: outcome.name for qid, outcome in results.items()} }")


if __name__ == "__main__":
    asyncio.run(main())
