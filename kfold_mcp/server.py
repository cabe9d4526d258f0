"""K-fold MCP Server - Main entry point."""

import asyncio
import json
import logging
import os
import sys
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from .backends import LocalModelService, ModelType, analyze_dataframe
from .harness import CrossValidation, RunConfig, RunResult, RunStatus, resolve_config
from .harness.config import DEFAULT_CONFIG
from .sources import CsvSource, KaggleConfig, KaggleSource
from .store import RunStore

logger = logging.getLogger(__name__)

# Local models train in-process, so there is no need to wait between batches
# or to poll as slowly as a remote service requires.
SERVER_DEFAULTS = replace(DEFAULT_CONFIG, throttle_ms=0, polling_interval_ms=250)

RUN_OVERRIDES = (
    "num_folds",
    "batch_size",
    "throttle_ms",
    "polling_interval_ms",
    "polling_timeout_ms",
    "seed",
    "train_only",
    "verbose",
)


class ServerState:
    """Global server state."""
    store: Optional[RunStore] = None
    # Services holding the models of train-only runs, by run id.
    services: dict[str, LocalModelService] = {}
    data_dir: Path = Path(os.environ.get("KFOLD_DATA_DIR", "./kfold_data"))


state = ServerState()

server = Server("kfold-mcp")


def get_tools() -> list[Tool]:
    """Define all available MCP tools."""
    run_settings = {
        "num_folds": {"type": "integer", "description": "Number of folds (default: 3)"},
        "batch_size": {"type": "integer", "description": "Predictions per batch (default: 10)"},
        "throttle_ms": {"type": "number", "description": "Delay between prediction batches in ms"},
        "polling_interval_ms": {"type": "number", "description": "Delay between training status checks in ms"},
        "polling_timeout_ms": {"type": "number", "description": "Maximum time to wait for training in ms"},
        "seed": {"type": "integer", "description": "Shuffle seed; set it for reproducible folds"},
        "verbose": {"type": "boolean", "description": "Log every step of the run"},
    }
    return [
        Tool(
            name="analyze_dataset",
            description="Analyze a CSV file and return column types, missing values and statistics.",
            inputSchema={
                "type": "object",
                "properties": {
                    "file_path": {"type": "string", "description": "Path to the CSV file"},
                },
                "required": ["file_path"],
            },
        ),
        Tool(
            name="run_cross_validation",
            description=(
                "Run k-fold cross-validation of a locally trained model on a CSV file or "
                "a Kaggle dataset/competition file. With train_only the fold models are "
                "kept so the run can be resumed."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "target_column": {"type": "string", "description": "Name of the label column"},
                    "file_path": {"type": "string", "description": "Path to a local CSV file"},
                    "kaggle_dataset": {"type": "string", "description": "Kaggle dataset ref (owner/slug)"},
                    "kaggle_competition": {"type": "string", "description": "Kaggle competition ref"},
                    "file_name": {
                        "type": "string",
                        "description": "CSV file inside the Kaggle download (default: train.csv)",
                        "default": "train.csv",
                    },
                    "feature_columns": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Columns to use as inputs (default: all but the target)",
                    },
                    "model_type": {
                        "type": "string",
                        "description": "Estimator to train per fold",
                        "enum": [m.value for m in ModelType],
                        "default": ModelType.RANDOM_FOREST.value,
                    },
                    "hyperparameters": {"type": "object", "description": "Estimator hyperparameters"},
                    "train_only": {
                        "type": "boolean",
                        "description": "Stop after training and keep the models",
                        "default": False,
                    },
                    "include_predictions": {
                        "type": "boolean",
                        "description": "Return every prediction, not just the reports",
                        "default": False,
                    },
                    **run_settings,
                },
                "required": ["target_column"],
            },
        ),
        Tool(
            name="resume_run",
            description="Evaluate the models of a train-only run without retraining them.",
            inputSchema={
                "type": "object",
                "properties": {
                    "run_id": {"type": "string", "description": "ID of the train-only run"},
                    "train_only": {
                        "type": "boolean",
                        "description": "Only wait for training again",
                        "default": False,
                    },
                    "include_predictions": {"type": "boolean", "default": False},
                    "batch_size": run_settings["batch_size"],
                    "throttle_ms": run_settings["throttle_ms"],
                    "polling_interval_ms": run_settings["polling_interval_ms"],
                    "polling_timeout_ms": run_settings["polling_timeout_ms"],
                    "verbose": run_settings["verbose"],
                },
                "required": ["run_id"],
            },
        ),
        Tool(
            name="list_runs",
            description="List recent cross-validation runs.",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {"type": "integer", "description": "Maximum runs (default: 20)", "default": 20},
                },
            },
        ),
        Tool(
            name="get_run",
            description="Get the summary and reports of a run.",
            inputSchema={
                "type": "object",
                "properties": {
                    "run_id": {"type": "string", "description": "Run ID"},
                },
                "required": ["run_id"],
            },
        ),
        Tool(
            name="delete_run_models",
            description="Delete the models kept by a train-only run.",
            inputSchema={
                "type": "object",
                "properties": {
                    "run_id": {"type": "string", "description": "Run ID"},
                },
                "required": ["run_id"],
            },
        ),
    ]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return get_tools()


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        result = await handle_tool_call(name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]
    except Exception as e:
        logger.exception("Tool %s failed", name)
        error_result = {"error": str(e), "tool": name}
        return [TextContent(type="text", text=json.dumps(error_result, indent=2))]


async def handle_tool_call(name: str, arguments: dict[str, Any]) -> dict:
    """Route tool calls to handlers."""
    await ensure_initialized()

    handlers = {
        "analyze_dataset": handle_analyze_dataset,
        "run_cross_validation": handle_run_cross_validation,
        "resume_run": handle_resume_run,
        "list_runs": handle_list_runs,
        "get_run": handle_get_run,
        "delete_run_models": handle_delete_run_models,
    }

    handler = handlers.get(name)
    if not handler:
        return {"error": f"Unknown tool: {name}"}

    return await handler(arguments)


async def ensure_initialized():
    """Ensure all components are initialized."""
    if state.store is None:
        state.store = RunStore(state.data_dir / "runs.db")


def build_source(args: dict):
    """Data source described by tool arguments."""
    target = args["target_column"]
    feature_columns = args.get("feature_columns")

    if args.get("kaggle_dataset") or args.get("kaggle_competition"):
        return KaggleSource(
            file_name=args.get("file_name", "train.csv"),
            target_column=target,
            dataset=args.get("kaggle_dataset"),
            competition=args.get("kaggle_competition"),
            feature_columns=feature_columns,
            config=KaggleConfig(data_dir=state.data_dir / "kaggle"),
        )

    if not args.get("file_path"):
        raise ValueError("Provide file_path, kaggle_dataset or kaggle_competition")
    return CsvSource(args["file_path"], target, feature_columns)


def describe_source(args: dict) -> str:
    if args.get("kaggle_dataset"):
        return f"kaggle-dataset:{args['kaggle_dataset']}/{args.get('file_name', 'train.csv')}"
    if args.get("kaggle_competition"):
        return f"kaggle-competition:{args['kaggle_competition']}/{args.get('file_name', 'train.csv')}"
    return str(args.get("file_path", ""))


def config_from_record(stored: dict) -> RunConfig:
    """Rebuild the scalar settings of a stored run."""
    names = {f.name for f in fields(RunConfig)} - {"folds", "train_models"}
    return replace(SERVER_DEFAULTS, **{k: v for k, v in stored.items() if k in names})


def format_result(run_id: str, result: RunResult, include_predictions: bool) -> dict:
    """Tool response for a finished run."""
    response = {
        "run_id": run_id,
        "status": result.status.value,
        "error": result.error,
    }
    if result.train_only:
        response["folds"] = [
            {"train_size": len(f.train), "test_size": len(f.test)} for f in result.folds
        ]
        response["models"] = [getattr(m, "id", str(m)) for m in result.train_models]
    elif result.status == RunStatus.COMPLETED:
        response["prediction_count"] = len(result.predictions)
        response["reports"] = result.reports
        if include_predictions:
            response["predictions"] = [p.to_dict() for p in result.predictions]
    return response


async def hold_models(
    run_id: str, service: LocalModelService, result: RunResult, response: dict,
) -> bool:
    """Keep the models of a resumable train-only run, delete them otherwise."""
    if await state.store.load_resume_state(run_id) is not None:
        state.services[run_id] = service
        return True

    await CrossValidation(service).cleanup(result.train_models)
    await state.store.mark_models_deleted(run_id)
    response["models_deleted"] = True
    return False


async def handle_analyze_dataset(args: dict) -> dict:
    """Analyze a CSV file."""
    source = CsvSource(args["file_path"], target_column="")
    loop = asyncio.get_running_loop()
    df = await loop.run_in_executor(None, source.read_frame)
    return {"file": args["file_path"], "analysis": analyze_dataframe(df)}


async def handle_run_cross_validation(args: dict) -> dict:
    """Run a cross-validation experiment."""
    config = resolve_config(
        {k: args[k] for k in RUN_OVERRIDES if args.get(k) is not None},
        base=RunConfig.from_env(base=SERVER_DEFAULTS),
    )
    service = LocalModelService(
        source=build_source(args),
        model_type=ModelType(args.get("model_type", ModelType.RANDOM_FOREST.value)),
        hyperparameters=args.get("hyperparameters"),
    )

    run = await state.store.create_run(config, source=describe_source(args))
    result = await CrossValidation(service, config).run()
    await state.store.complete_run(run.run_id, result)

    response = format_result(run.run_id, result, args.get("include_predictions", False))
    if result.train_only:
        await hold_models(run.run_id, service, result, response)
    return response


async def handle_resume_run(args: dict) -> dict:
    """Evaluate the models of a train-only run."""
    run_id = args["run_id"]
    previous = await state.store.get_run(run_id)
    if not previous:
        return {"error": f"Run not found: {run_id}"}
    if previous.models_deleted:
        return {"error": f"Models of run {run_id} were already deleted"}

    service = state.services.get(run_id)
    resume = await state.store.load_resume_state(run_id)
    if service is None or resume is None:
        return {"error": f"Run {run_id} has no models held by this server"}

    folds, models = resume
    overrides = {k: args[k] for k in RUN_OVERRIDES if k != "seed" and args.get(k) is not None}
    overrides.update(folds=folds, train_models=models, train_only=args.get("train_only", False))
    config = resolve_config(overrides, base=config_from_record(previous.config))

    run = await state.store.create_run(config, source=f"resume:{run_id}")
    result = await CrossValidation(service, config).run()
    await state.store.complete_run(run.run_id, result)

    state.services.pop(run_id, None)
    response = format_result(run.run_id, result, args.get("include_predictions", False))
    if not result.train_only or not await hold_models(run.run_id, service, result, response):
        await state.store.mark_models_deleted(run_id)
    response["resumed_from"] = run_id
    return response


async def handle_list_runs(args: dict) -> dict:
    """List recent runs."""
    runs = await state.store.list_runs(limit=args.get("limit", 20))
    return {
        "runs": [
            {
                "run_id": r.run_id,
                "status": r.status,
                "source": r.source,
                "train_only": r.train_only,
                "prediction_count": r.prediction_count,
                "created_at": r.created_at.isoformat(),
            }
            for r in runs
        ],
        "count": len(runs),
    }


async def handle_get_run(args: dict) -> dict:
    """Get a run summary with its reports."""
    run_id = args["run_id"]
    summary = await state.store.get_run_summary(run_id)
    if not summary:
        return {"error": f"Run not found: {run_id}"}

    run = await state.store.get_run(run_id)
    summary["config"] = run.config
    summary["reports"] = run.reports
    summary["models_held"] = run_id in state.services
    return summary


async def handle_delete_run_models(args: dict) -> dict:
    """Delete the models of a train-only run."""
    run_id = args["run_id"]
    service = state.services.get(run_id)
    resume = await state.store.load_resume_state(run_id)
    if service is None or resume is None:
        return {"error": f"Run {run_id} has no models held by this server"}

    state.services.pop(run_id)
    _, models = resume
    await CrossValidation(service).cleanup(models)
    await state.store.mark_models_deleted(run_id)

    return {"run_id": run_id, "deleted": len(models)}


async def run_server():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def main():
    """Main entry point."""
    # stdout carries the protocol, so logs go to stderr.
    logging.basicConfig(
        level=os.environ.get("KFOLD_LOG_LEVEL", "INFO").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
