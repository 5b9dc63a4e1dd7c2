import argparse
import asyncio
import json
import logging

from code_reader.fakes.fake_embedder import HashingEmbedder
from code_reader.fakes.fake_worker import FakeAnalysisWorker
from code_reader.graphs.code_reader import build_code_reader_graph
from code_reader.graphs.state import InputKind, call_to_action, new_shared_state
from code_reader.orchestrator.coordinator import FlowCoordinator
from code_reader.queue.consumer import FlowQueueConsumer
from code_reader.queue.memory_queue import InMemoryQueue
from code_reader.rag.retriever import ContextRetriever
from code_reader.rag.vector_store import NumpyVectorStore
from code_reader.storage.kv import InMemoryKVStore


def answer_for(kind: str, args) -> object:
    if kind == InputKind.IMPROVE_BASIC_INPUT:
        return {"main_goal": args.goal}
    if kind == InputKind.USER_FEEDBACK:
        return {"action": "accept"}
    return None


async def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    parser = argparse.ArgumentParser(description="Run one code-reader flow end-to-end with fakes.")
    parser.add_argument("--repo", type=str, default="demo-repo")
    parser.add_argument("--goal", type=str, default="Understand the request lifecycle")
    parser.add_argument("--files", nargs="+", default=["src/app.py", "src/routes.py", "src/models.py"])
    parser.add_argument("--ask-goal", action="store_true", help="Start without a goal to exercise the pause")
    parser.add_argument("--max-rounds", type=int, default=50)
    args = parser.parse_args()

    store = InMemoryKVStore()
    queue = InMemoryQueue()
    retriever = ContextRetriever(HashingEmbedder(), NumpyVectorStore())
    graph = build_code_reader_graph(FakeAnalysisWorker(), retriever)
    coordinator = FlowCoordinator(store, graph, queue, heartbeat_interval=1.0)
    consumer = FlowQueueConsumer(queue, coordinator)

    run_id = "local-run"
    basic = {"repo_name": args.repo, "file_structure": args.files}
    if not args.ask_goal:
        basic["main_goal"] = args.goal
    await coordinator.initialize_flow(run_id, new_shared_state(basic))
    await coordinator.queue_flow_execution(run_id, "trigger")

    for _ in range(args.max_rounds):
        batch = await queue.receive_batch(timeout=0.1)
        if batch:
            await consumer.handle_batch(batch)
        shared = await coordinator.get_flow(run_id) or {}
        kind = call_to_action(shared)
        if kind is None:
            continue
        result = await coordinator.handle_user_input(run_id, kind, answer_for(kind, args))
        print(json.dumps({"input": kind, "success": result.success, "message": result.message}, ensure_ascii=False))
        if kind == InputKind.FINISH:
            break

    shared = await coordinator.get_flow(run_id) or {}
    print(json.dumps(
        {
            "completed": shared.get("completed"),
            "all_summaries": shared.get("all_summaries"),
            "reduced_output": shared.get("reduced_output"),
        },
        ensure_ascii=False,
        indent=2,
    ))
    await coordinator.close()


if __name__ == "__main__":
    asyncio.run(main())
