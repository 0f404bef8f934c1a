import asyncio


async def eventually(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Wait until ``predicate()`` is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


async def settle() -> None:
    """Let in-flight in-process requests run until they block."""
    for _ in range(20):
        await asyncio.sleep(0)


def always(answer: bool):
    prompts = []

    def confirm(prompt: str) -> bool:
        prompts.append(prompt)
        return answer

    confirm.prompts = prompts
    return confirm
