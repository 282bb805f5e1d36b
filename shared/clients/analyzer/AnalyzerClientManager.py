from shared.clients.analyzer.TextAnalyzer import TextAnalyzer
from shared.helper.HelperConfig import HelperConfig


class AnalyzerClientManager:
    """Manager class to instantiate the configured CV analyzer."""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Returns:
            str: Capitalised engine name from ANALYZER_ENGINE (e.g. "Openai"). Defaults to "Fallback".
        """
        engine = self.helper_config.get_string_val("ANALYZER_ENGINE", default="fallback")
        return engine.strip().lower().capitalize()

    def _initialize_client(self) -> TextAnalyzer:
        """Instantiate the analyzer for the configured engine.

        Raises:
            ValueError: If the engine is unsupported or cannot be imported.
        """
        engine = self._get_engine_from_env()
        class_name = f"AnalyzerClient{engine}"
        try:
            module = __import__(
                f"shared.clients.analyzer.{engine.lower()}.{class_name}",
                fromlist=[class_name],
            )
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError("Unsupported analyzer engine '%s'. Error: %s" % (engine, e))
        client = client_class(helper_config=self.helper_config)
        self.logging.info("Using CV analyzer engine: %s", engine)
        return client

    def get_client(self) -> TextAnalyzer:
        return self.client
