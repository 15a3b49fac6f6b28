"""Abstraction agent: summarizes each cluster of a hierarchy into one statement.

Layer-1 clusters are summarized from the statements of their items, layer-2
clusters from the summaries of their child clusters. The resulting records
carry the cluster links needed to rebuild an ExistingClusterSnapshot on the
next incremental run.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import PydanticOutputParser
from langchain_core.prompts import PromptTemplate
from pydantic import BaseModel, Field

from JTBD_clustering.clustering.models import HierarchyResult, Item
from JTBD_clustering.DEFAULT_CONSTS import DEFAULT_RECORD_KEYS
from JTBD_clustering.prompts_templates.abstraction import ABSTRACTION_PROMPTS

LOGGER = logging.getLogger(__name__)

_KEYS = DEFAULT_RECORD_KEYS


class AbstractionResult(BaseModel):
    """Abstract statement generated for a cluster."""

    statement: str = Field(..., description="Abstract statement covering the cluster")
    situation: Optional[str] = Field(None, description="Situation component")
    motivation: Optional[str] = Field(None, description="Motivation component")
    outcome: Optional[str] = Field(None, description="Expected outcome component")
    priority: int = Field(..., ge=1, le=10, description="Priority score from 1 to 10")
    explanation: str = Field("", description="How the abstraction relates to the statements")


class AbstractionAgent:
    """LLM agent generating abstract statements for clusters.

    Parameters
    ----------
    llm : BaseChatModel
        Language model to use
    max_retries : int
        Attempts per cluster before giving up
    item_type : str
        "jtbd" or "scenario"; selects the prompt template and the record id
        prefix
    """

    def __init__(self, llm: BaseChatModel, max_retries: int = 3, item_type: str = "jtbd"):
        if item_type not in ABSTRACTION_PROMPTS:
            raise ValueError(
                f"item_type must be one of {list(ABSTRACTION_PROMPTS)}, got '{item_type}'"
            )
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")

        self.llm = llm
        self.max_retries = max_retries
        self.item_type = item_type

        self.parser = PydanticOutputParser(pydantic_object=AbstractionResult)
        self.template = PromptTemplate(
            template=ABSTRACTION_PROMPTS[item_type],
            input_variables=["statements"],
            partial_variables={"format_instructions": self.parser.get_format_instructions()},
        )

    def _invoke_llm_with_retry(self, prompt: str) -> Optional[Dict[str, Any]]:
        """Invoke the LLM and parse its answer, retrying on failure."""
        for attempt in range(self.max_retries):
            try:
                response = self.llm.invoke(prompt)
                content = response.content if hasattr(response, "content") else str(response)
                LOGGER.debug(f"LLM response (attempt {attempt + 1}): {content[:200]}...")

                result = self.parser.parse(content)
                return result.model_dump()
            except Exception as e:  # pylint: disable=broad-exception-caught
                LOGGER.warning(
                    f"Abstraction attempt {attempt + 1}/{self.max_retries} failed: {e}"
                )

        LOGGER.error(f"All {self.max_retries} abstraction attempts failed")
        return None

    def generate_abstraction(self, statements: Sequence[str]) -> Optional[Dict[str, Any]]:
        """
        Generate one abstract statement for a group of statements.

        Parameters
        ----------
        statements : Sequence[str]
            Statements of the cluster members

        Returns
        -------
        Optional[Dict[str, Any]]
            Abstraction with keys statement, situation, motivation, outcome,
            priority and explanation, or None if all retries failed

        Raises
        ------
        ValueError
            If no statements are given
        """
        statements = [s for s in statements if s and s.strip()]
        if not statements:
            raise ValueError("Cannot generate an abstraction from an empty cluster")

        numbered = "\n".join(f"{i + 1}. {statement}" for i, statement in enumerate(statements))
        prompt = self.template.format(statements=numbered)
        return self._invoke_llm_with_retry(prompt)

    def _record_id(self, cluster_id: str) -> str:
        return f"{self.item_type}-{cluster_id}"

    def _summarize(
        self,
        cluster_id: str,
        level: int,
        statements: List[str],
    ) -> Dict[str, Any]:
        """Build the summary record fields of one cluster."""
        if len(statements) == 1:
            return {_KEYS.statement: statements[0], _KEYS.is_abstract: False}

        abstraction = self.generate_abstraction(statements)
        if abstraction is None:
            LOGGER.warning(
                f"No abstraction for level-{level} cluster {cluster_id}; "
                f"using its first statement"
            )
            return {_KEYS.statement: statements[0], _KEYS.is_abstract: False}

        return {**abstraction, _KEYS.is_abstract: True}

    def summarize_hierarchy(
        self, result: HierarchyResult, items: Sequence[Item]
    ) -> List[Dict[str, Any]]:
        """
        Produce one summary record per cluster of a hierarchy.

        Clusters holding a single statement are passed through without an
        LLM call.

        Parameters
        ----------
        result : HierarchyResult
            Clustering result
        items : Sequence[Item]
            The clustered items, used for their statements

        Returns
        -------
        List[Dict[str, Any]]
            Level-1 records followed by level-2 records. Each record has
            ``id``, ``statement``, ``level``, ``cluster_id``, ``parent_id``,
            ``child_ids``, ``item_ids`` and ``is_abstract``.
        """
        text_by_id = {item.id: item.text for item in items}
        records: List[Dict[str, Any]] = []
        layer1_records: Dict[str, Dict[str, Any]] = {}

        if result.layer_count == 0:
            return records

        layer1 = result.get_layer(1)
        LOGGER.info(f"Summarizing {len(layer1.clusters)} layer-1 clusters")
        for cluster in layer1.clusters:
            missing = [item_id for item_id in cluster.member_item_ids if item_id not in text_by_id]
            if missing:
                raise ValueError(f"Cluster {cluster.id} refers to unknown items: {missing[:5]}")

            statements = [text_by_id[item_id] for item_id in cluster.member_item_ids]
            record = {
                _KEYS.id: self._record_id(cluster.id),
                _KEYS.level: 1,
                _KEYS.cluster_id: cluster.id,
                _KEYS.parent_id: (
                    self._record_id(cluster.parent_cluster_id)
                    if cluster.parent_cluster_id
                    else None
                ),
                _KEYS.child_ids: [],
                _KEYS.item_ids: list(cluster.member_item_ids),
                **self._summarize(cluster.id, 1, statements),
            }
            layer1_records[cluster.id] = record
            records.append(record)

        if result.layer_count < 2:
            return records

        layer2 = result.get_layer(2)
        LOGGER.info(f"Summarizing {len(layer2.clusters)} layer-2 clusters")
        for cluster in layer2.clusters:
            children = [layer1_records[child_id] for child_id in cluster.child_cluster_ids]
            record = {
                _KEYS.id: self._record_id(cluster.id),
                _KEYS.level: 2,
                _KEYS.cluster_id: cluster.id,
                _KEYS.parent_id: None,
                _KEYS.child_ids: [child[_KEYS.id] for child in children],
                _KEYS.item_ids: list(cluster.member_item_ids),
                **self._summarize(
                    cluster.id, 2, [child[_KEYS.statement] for child in children]
                ),
            }
            records.append(record)

        return records
