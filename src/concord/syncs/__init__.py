"""Application synchronizations: mediated routes plus the category fan-out."""

from concord.syncs.core import ROUTE_SYNCS
from concord.syncs.notifications import CATEGORY_POST_FAN_OUT, fan_out_category_post

ALL_SYNCS = (*ROUTE_SYNCS, CATEGORY_POST_FAN_OUT)

__all__ = ["ALL_SYNCS", "ROUTE_SYNCS", "CATEGORY_POST_FAN_OUT", "fan_out_category_post"]
