# noqa
from gtd_review.services.review_workflow_service import ReviewWorkflowService
from gtd_review.services.review_data_aggregator import ReviewDataAggregator
from gtd_review.services.task_action_dispatcher import TaskAction, TaskActionDispatcher
from gtd_review.services.review_analytics import ReviewAnalyticsService
from gtd_review.services.coaching_service import CoachingService, CoachingPromptLibrary

__all__ = [
    "ReviewWorkflowService",
    "ReviewDataAggregator",
    "TaskAction",
    "TaskActionDispatcher",
    "ReviewAnalyticsService",
    "CoachingService",
    "CoachingPromptLibrary",
]
