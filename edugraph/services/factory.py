from dataclasses import dataclass
from typing import Optional

from edugraph.config.settings import get_settings
from edugraph.core.logging import logger, setup_logging
from edugraph.events.publisher import Publisher, build_publisher
from edugraph.services.content.concepts import ConceptService
from edugraph.services.content.contests import ContestService
from edugraph.services.content.learning_paths import LearningPathService
from edugraph.services.content.questions import QuestionService
from edugraph.services.content.quizzes import QuizService
from edugraph.services.content.resources import ResourceService
from edugraph.services.content.syllabus import SyllabusService
from edugraph.services.graph.neo4j_repo import Neo4jRepo
from edugraph.services.graph.reader import GraphReader
from edugraph.services.graph.writer import AggregateWriter


@dataclass
class ContentServices:
    writer: AggregateWriter
    reader: GraphReader
    concepts: ConceptService
    questions: QuestionService
    quizzes: QuizService
    resources: ResourceService
    contests: ContestService
    learning_paths: LearningPathService
    syllabus: SyllabusService


def build_services(store=None, publish: Optional[Publisher] = None) -> ContentServices:
    """Wire the content services over one graph store; defaults come from settings."""
    if store is None:
        settings = get_settings()
        setup_logging(settings.log_level)
        store = Neo4jRepo()
        if not store.verify():
            logger.warning("neo4j_unreachable", uri=store.uri)
    writer = AggregateWriter(store, publish=publish if publish is not None else build_publisher())
    reader = GraphReader(store)
    logger.info("content_services_ready", transactional=bool(getattr(store, "supports_transactions", False)))
    return ContentServices(
        writer=writer,
        reader=reader,
        concepts=ConceptService(writer, reader),
        questions=QuestionService(writer, reader),
        quizzes=QuizService(writer, reader),
        resources=ResourceService(writer, reader),
        contests=ContestService(writer, reader),
        learning_paths=LearningPathService(writer, reader),
        syllabus=SyllabusService(reader),
    )
