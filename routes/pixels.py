from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi.responses import JSONResponse
from typing import Optional
import logging

import config
from stores import GridStore, get_grid_store
from models import Cell, ConquerRequest, RecolorRequest, JobAcceptedResponse
from services import pricing
from services.batch_validator import validate
from services.committer import ConquestCommitter
from services.conquest import PAID_NOT_COMMITTED, build_result, get_job_dispatcher, submit_conquest
from services.exceptions import InvalidBatch, NotCellOwner
from services.job_queue import JobQueue
from services.payment import get_payment_gateway
from services.rate_limiter import get_rate_limiter
from utils.validation import is_in_grid
from .deps import enforce_rate_limit, get_committer, get_job_queue

logger = logging.getLogger(__name__)

router = APIRouter()


def _describe(cell: Cell) -> dict:
	price = cell["current_price"]
	upcoming = pricing.next_price(price)
	return {
		"x": cell["x"],
		"y": cell["y"],
		"color": cell["color"],
		"price": price,
		"priceFormatted": pricing.format_balance(price),
		"nextPrice": upcoming,
		"nextPriceFormatted": pricing.format_balance(upcoming),
		"owner": cell["owner_id"],
		"conquestCount": cell["conquest_count"],
		"lastConqueredAt": cell["last_conquered_at"],
	}


def _parse_coordinates(raw: str) -> list[tuple[int, int]]:
	"""Parse `x,y;x,y` into coordinates, raising 400 on anything malformed."""
	coords = []
	for part in raw.split(";"):
		try:
			x_str, y_str = part.split(",")
			x, y = int(x_str), int(y_str)
		except ValueError:
			raise HTTPException(status_code=400, detail=f"Invalid coordinate: {part!r}")
		if not is_in_grid(x, y, config.GRID_WIDTH, config.GRID_HEIGHT):
			raise HTTPException(status_code=400, detail=f"Invalid coordinate: ({x}, {y})")
		coords.append((x, y))
	if len(coords) > config.MAX_BATCH_SIZE:
		raise HTTPException(status_code=400, detail=f"Maximum {config.MAX_BATCH_SIZE} cells per request")
	return coords


@router.get("/api/pixels/conquer")
async def conquer_usage():
	"""Describe the conquest endpoint."""
	return {
		"endpoint": "Pixel Conquest API",
		"method": "POST",
		"description": "Purchase cells by paying their current price; owned cells are recolored for free",
		"rateLimit": f"{config.CONQUER_MAX_REQUESTS} requests per {config.RATE_LIMIT_WINDOW_MS // 1000} seconds",
		"maxCellsPerRequest": config.MAX_BATCH_SIZE,
		"asyncThreshold": config.ASYNC_THRESHOLD,
		"usage": {
			"actorId": "Your identity (wallet address or agent id)",
			"credential": "Funding credential used to settle the payment",
			"cells": [
				{"x": 0, "y": 0, "color": "#FF0000"},
				{"x": 1, "y": 0, "color": "#00FF00"},
			],
			"forceAsync": False,
		},
	}


@router.post("/api/pixels/conquer")
async def conquer(
	req: ConquerRequest,
	limiter = Depends(get_rate_limiter),
	store: GridStore = Depends(get_grid_store),
	queue: JobQueue = Depends(get_job_queue),
	gateway = Depends(get_payment_gateway),
	committer: ConquestCommitter = Depends(get_committer),
	dispatch = Depends(get_job_dispatcher),
):
	await enforce_rate_limit(limiter, f"conquer:{req.actor_id}", config.CONQUER_MAX_REQUESTS)

	try:
		submission = await submit_conquest(
			req.actor_id,
			req.credential,
			req.cells,
			store=store,
			queue=queue,
			gateway=gateway,
			committer=committer,
			dispatch=dispatch,
			force_async=req.force_async,
		)
	except InvalidBatch as exc:
		logger.info(f"Rejected conquest from {req.actor_id}: {exc}")
		raise HTTPException(status_code=400, detail=str(exc))

	if submission.is_async:
		accepted = JobAcceptedResponse(
			job_id=submission.job_id,
			status="pending",
			estimated_price=submission.batch.total_price,
			total_cells=submission.batch.total_cells,
			poll_url=f"/api/pixels/job?id={submission.job_id}",
			message="Job accepted. Poll the status URL for the result.",
		)
		return JSONResponse(accepted.model_dump(by_alias=True), status_code=202)

	result = submission.result
	if result["success"]:
		return result
	if result["errorCode"] == PAID_NOT_COMMITTED:
		return JSONResponse(result, status_code=502)
	if result["settlementRef"] is None and result["errorCode"] is None:
		return JSONResponse(result, status_code=500)
	return JSONResponse(result, status_code=402)


@router.post("/api/pixels/recolor")
async def recolor(
	req: RecolorRequest,
	limiter = Depends(get_rate_limiter),
	store: GridStore = Depends(get_grid_store),
	committer: ConquestCommitter = Depends(get_committer),
):
	"""Recolor cells the actor already owns. No payment is involved."""
	await enforce_rate_limit(limiter, f"recolor:{req.actor_id}", config.RECOLOR_MAX_REQUESTS)

	try:
		batch = await validate(req.actor_id, req.cells, store)
		if batch.to_conquer:
			raise NotCellOwner(req.actor_id, [(item.x, item.y) for item in batch.to_conquer])
	except InvalidBatch as exc:
		raise HTTPException(status_code=400, detail=str(exc))
	except NotCellOwner as exc:
		raise HTTPException(status_code=403, detail=str(exc))

	commit = await committer.commit(req.actor_id, [], batch.to_recolor, None)
	result = build_result(success=commit.error_count == 0, total_cells=batch.total_cells, commit=commit)
	return JSONResponse(result, status_code=200 if result["success"] else 500)


@router.get("/api/pixels/info")
async def pixel_info(
	x: Optional[int] = None,
	y: Optional[int] = None,
	cells: Optional[str] = None,
	owner: Optional[str] = None,
	show_all: bool = Query(default=False, alias="all"),
	store: GridStore = Depends(get_grid_store),
):
	if x is not None and y is not None:
		if not is_in_grid(x, y, config.GRID_WIDTH, config.GRID_HEIGHT):
			raise HTTPException(
				status_code=400,
				detail=f"Invalid coordinates. Must be 0-{config.GRID_WIDTH - 1} x 0-{config.GRID_HEIGHT - 1}.",
			)
		cell = await store.get_cell(x, y)
		if cell is None:
			raise HTTPException(status_code=404, detail="Pixel not found")
		return {"success": True, "pixel": _describe(cell)}

	if cells:
		coords = _parse_coordinates(cells)
		found = await store.get_cells(coords)
		pixels = [_describe(found[xy]) for xy in coords if xy in found]
		return {
			"success": True,
			"pixelCount": len(pixels),
			"totalPrice": sum(p["price"] for p in pixels),
			"missing": [list(xy) for xy in coords if xy not in found],
			"pixels": pixels,
		}

	if owner:
		owned = await store.list_cells(owner_id=owner)
		return {
			"success": True,
			"owner": owner,
			"pixelCount": len(owned),
			"totalValue": sum(c["current_price"] for c in owned),
			"pixels": [_describe(c) for c in owned],
		}

	if show_all:
		stats = await store.grid_statistics()
		every = await store.list_cells()
		return {
			"success": True,
			"statistics": {
				"totalPixels": stats["total_cells"],
				"ownedPixels": stats["owned_cells"],
				"unownedPixels": stats["unowned_cells"],
				"totalValue": stats["total_value"],
				"averagePrice": stats["average_price"],
			},
			"pixels": [
				{"x": c["x"], "y": c["y"], "color": c["color"], "price": c["current_price"], "owner": c["owner_id"]}
				for c in every
			],
		}

	return {
		"endpoint": "Pixel Info API",
		"usage": {
			"single": "/api/pixels/info?x=0&y=0",
			"multiple": "/api/pixels/info?cells=0,0;1,1",
			"byOwner": "/api/pixels/info?owner=OWNER_ID",
			"all": "/api/pixels/info?all=true",
		},
	}
