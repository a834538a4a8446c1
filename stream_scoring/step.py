"""
Scoring step: applies a model to a stream of rows.

One ``ScoringStep`` processes one stream at a time and owns all per-stream
state (mapping, scratch vectors, batch buffer, model cache). Several steps
may run in parallel, each with its own instance; a step that updates its
model incrementally works on a private copy of it.

Typical use::

    step = ScoringStep(ScoringConfig(output_probabilities=True), model=model)
    for output_row in step.process(rows, input_schema):
        sink(output_row)
"""

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from .batching import BatchAccumulator, BufferedRow, batch_mode_enabled, resolve_batch_size
from .config import ScoringConfig, is_empty, resolve_variables
from .dispatch import PredictionDispatcher, output_fields
from .exceptions import (
    BatchPredictionError,
    IncrementalUpdateError,
    RowPredictionError,
    ScoringError,
)
from .incremental import IncrementalUpdater, private_copy
from .instance import InstanceBuilder, is_null
from .mapping import Mapping, find_mappings, is_mapped, log_mapping
from .model_io import ModelCache, load_model, save_model
from .models import ScoringModel
from .monitoring import (
    scoring_batch_size,
    scoring_failures_total,
    scoring_incremental_updates_total,
    scoring_rows_total,
    scoring_unmapped_attributes,
)
from .schema import FieldKind, ModelSchema, SourceRowSchema

logger = logging.getLogger(__name__)


class ScoringStep:
    """Stream-processing instance wiring mapping, instance building, dispatch, batching and updates."""

    def __init__(self, config: Optional[ScoringConfig] = None, model: Optional[ScoringModel] = None,
                 loader: Callable[[str], ScoringModel] = load_model):
        self.config = config or ScoringConfig()
        self.config.validate()
        self._configured_model = model
        self._loader = loader
        self._stopped = False
        self._reset()

    def _reset(self) -> None:
        self.model: Optional[ScoringModel] = None
        self.default_model: Optional[ScoringModel] = None
        self.input_schema: Optional[SourceRowSchema] = None
        self.output_fields = []
        self.mapping: Optional[Mapping] = None
        self.rows_read = 0
        self.rows_written = 0
        self.batch: Optional[BatchAccumulator] = None
        self.updater = IncrementalUpdater.disabled()
        self.dispatcher: Optional[PredictionDispatcher] = None
        self.cache = ModelCache()
        self._builders: Dict[ModelSchema, InstanceBuilder] = {}
        self._current_builder: Optional[InstanceBuilder] = None
        self._builder_model: Optional[ScoringModel] = None
        self._model_field_index = -1
        self._last_model_path = ""
        self._first = True

    # ------------------------------------------------------------------
    # Stream lifecycle
    # ------------------------------------------------------------------

    @property
    def model_from_field(self) -> bool:
        return self.config.model_from_field

    @property
    def batch_mode(self) -> bool:
        return self.batch is not None and self.batch.enabled

    @property
    def stopped(self) -> bool:
        return self._stopped

    def begin(self, input_schema: SourceRowSchema) -> None:
        """Start a new stream whose rows follow ``input_schema``."""
        self._reset()
        self._stopped = False
        self.input_schema = input_schema

    def stop(self) -> None:
        """Request cancellation; honoured between rows and between batches."""
        self._stopped = True

    def process(self, rows: Iterable[Sequence[Any]], input_schema: SourceRowSchema) -> Iterator[List[Any]]:
        """
        Score a whole stream.

        Args:
            rows: Incoming rows aligned with ``input_schema``
            input_schema: Schema of the incoming rows

        Yields:
            Output rows: the input values followed by the prediction columns
        """
        self.begin(input_schema)
        for row in rows:
            if self._stopped:
                logger.info(f"Scoring stopped after {self.rows_read} rows")
                break
            yield from self.process_row(row)
        yield from self.finish()

    def process_row(self, row: Sequence[Any]) -> List[List[Any]]:
        """
        Accept one row.

        Returns:
            Output rows ready to be emitted: none while a batch is filling,
            the whole batch when it is flushed, otherwise just this row
        """
        if self.input_schema is None:
            raise ScoringError("begin() must be called before rows are processed")

        self.rows_read += 1
        row_number = self.rows_read

        if self._first:
            self._first = False
            self._initialise(row)
        elif self.model_from_field:
            self._select_model_from_row(row, row_number)

        pending = self.batch.add(row_number, row)
        if pending is None:
            output = []
        elif self.batch.enabled:
            output = self._flush(pending)
        else:
            output = [self._score_row(row_number, row)]

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Read row #{row_number} : {list(row)}")
        if row_number % self.config.feedback_interval == 0:
            logger.info(f"Linenr {row_number}")

        self.rows_written += len(output)
        return output

    def finish(self) -> List[List[Any]]:
        """
        End the stream: flush the partial batch, save an updated model, release the model.

        Returns:
            Output rows from the final flush
        """
        output: List[List[Any]] = []
        if self.model is None:
            return output

        if self.batch is not None and len(self.batch) > 0:
            output = self._flush(self.batch.drain())
            self.rows_written += len(output)

        if self.updater.enabled and not is_empty(self.config.saved_model_file):
            try:
                save_model(self.model, self.config.saved_model_file)
            except OSError as e:
                raise ScoringError(f"Problem saving updated model to {self.config.saved_model_file}") from e
            logger.info(f"Saved model updated with {self.updater.n_updates} rows to {self.config.saved_model_file}")

        self.model.done()
        if self.model_from_field:
            self.model = None
        logger.info(f"Finished scoring: {self.rows_read} rows read, {self.rows_written} rows written")
        return output

    def output_schema(self, input_schema: SourceRowSchema) -> SourceRowSchema:
        """Output schema for ``input_schema``: the input fields plus the prediction fields."""
        model = self.model or self.default_model or self._configured_model
        if model is None:
            if is_empty(self.config.model_file):
                raise ScoringError("No model available to determine the output fields")
            model = self._loader(self.config.model_file)
        return input_schema.extend(output_fields(model, self.config.output_probabilities))

    # ------------------------------------------------------------------
    # First-row initialisation
    # ------------------------------------------------------------------

    def _initialise(self, first_row: Sequence[Any]) -> None:
        if self.model_from_field:
            self._initialise_field_models(first_row)
        elif self._configured_model is None or not is_empty(self.config.model_file):
            if is_empty(self.config.model_file):
                raise ScoringError("No model supplied and no file name to load a model from")
            self.model = self._loader(self.config.model_file)
        else:
            self.model = self._configured_model

        builder = self._builder_for(self.model)
        self.mapping = builder.mapping
        scoring_unmapped_attributes.set(sum(1 for entry in self.mapping if not is_mapped(entry)))

        batch_mode = batch_mode_enabled(self.model, self.model_from_field, self.config.batch_scoring)
        self.updater = IncrementalUpdater.decide(
            self.model, self.mapping, self.config.update_incremental_model,
            batch_mode=batch_mode, model_from_field=self.model_from_field,
        )
        if self.updater.enabled:
            self.model = private_copy(self.model)
            self.updater.model = self.model

        self.output_fields = output_fields(self.model, self.config.output_probabilities)
        self.dispatcher = PredictionDispatcher(
            self.model,
            output_probabilities=self.config.output_probabilities,
            unable_to_predict_marker=self.config.missing_prediction_marker,
            unable_to_assign_marker=self.config.missing_prediction_marker,
        )

        batch_size = self.config.default_batch_size
        if batch_mode:
            batch_size = resolve_batch_size(self.config.batch_size, self.model.preferred_batch_size,
                                            self.config.default_batch_size)
            logger.info(f"Scoring in batches of {batch_size} rows")
        self.batch = BatchAccumulator(batch_size, enabled=batch_mode)

    def _initialise_field_models(self, first_row: Sequence[Any]) -> None:
        field_name = self.config.model_field
        self._model_field_index = self.input_schema.index_of(field_name)
        if self._model_field_index < 0:
            raise ScoringError(f"Unable to locate model file field '{field_name}' in the incoming stream")
        if self.input_schema[self._model_field_index].kind is not FieldKind.STRING:
            raise ScoringError(f"Model file field '{field_name}' must be a string field")

        if not is_empty(self.config.model_file):
            self.default_model = self._loader(self.config.model_file)
        elif self._configured_model is not None:
            self.default_model = self._configured_model

        self._select_model_from_row(first_row, 1)
        logger.info(f"Sourcing model file names from input field '{field_name}'")

    def _select_model_from_row(self, row: Sequence[Any], row_number: int) -> None:
        value = row[self._model_field_index]
        if is_null(value):
            if self.default_model is None:
                raise ScoringError(
                    f"No model file specified in field for row #{row_number} and no default model"
                )
            logger.debug("Using default model")
            self._last_model_path = ""
            self._set_model(self.default_model)
            return

        resolved = resolve_variables(str(value))
        if resolved == self._last_model_path:
            return

        if self.config.cache_loaded_models:
            cached = self.cache.get(resolved)
            if cached is not None:
                logger.debug(f"Found model in cache: {cached!r}")
                self._set_model(cached)
                self._last_model_path = resolved
                return

        logger.debug(f"Loading model using field value {resolved}")
        model = self._loader(resolved)
        self._set_model(model)
        self._last_model_path = resolved
        if self.config.cache_loaded_models:
            self.cache.put(resolved, model)

    def _set_model(self, model: ScoringModel) -> None:
        self.model = model
        if self.dispatcher is not None:
            self.dispatcher.model = model

    def _builder_for(self, model: ScoringModel) -> InstanceBuilder:
        if model is self._builder_model:
            return self._current_builder

        builder = self._builders.get(model.header)
        if builder is None:
            mapping = find_mappings(model.header, self.input_schema)
            log_mapping(model.header, self.input_schema, mapping)
            builder = InstanceBuilder(model.header, self.input_schema, mapping)
            self._builders[model.header] = builder

        self._current_builder = builder
        self._builder_model = model
        return builder

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _score_row(self, row_number: int, row: Sequence[Any]) -> List[Any]:
        instance = self._builder_for(self.model).build(row)
        try:
            values = self.dispatcher.predict(instance)
        except Exception as e:
            scoring_failures_total.labels(kind="row").inc()
            raise RowPredictionError(row_number) from e

        try:
            if self.updater.apply(instance, row_number):
                scoring_incremental_updates_total.inc()
        except IncrementalUpdateError:
            scoring_failures_total.labels(kind="update").inc()
            raise

        scoring_rows_total.labels(mode="row").inc()
        return list(row) + values

    def _flush(self, batch: List[BufferedRow]) -> List[List[Any]]:
        if not batch:
            return []

        builder = self._builder_for(self.model)
        instances = [builder.build(row, fresh=True) for _, row in batch]
        try:
            results = self.dispatcher.predict_batch(instances)
        except Exception as e:
            scoring_failures_total.labels(kind="batch").inc()
            raise BatchPredictionError(batch[0][0], batch[-1][0]) from e

        logger.debug(f"Predicted batch of rows #{batch[0][0]}-#{batch[-1][0]}")
        scoring_batch_size.observe(len(batch))
        scoring_rows_total.labels(mode="batch").inc(len(batch))
        return [list(row) + values for (_, row), values in zip(batch, results)]
