"""Comment Routes - Administrator-only deletion"""

from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..deps import get_current_user_dep, get_database_dep, get_change_feed_dep
from .schemas import ActionResponse
from ...domain.models import ActorContext
from ...realtime.change_feed import ChangeFeed
from ...services.comment_service import CommentService

router = APIRouter()


@router.delete("/{comment_id}", response_model=ActionResponse)
def delete_comment(
    comment_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
):
    CommentService(database, feed).delete_comment(comment_id, actor)
    return ActionResponse(success=True, message="Comentario eliminado")
