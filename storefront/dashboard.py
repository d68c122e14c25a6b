"""Dashboard navigation state - active admin section, restored after reload."""
from typing import Optional

from storefront.logging import get_logger, loggable
from storefront.storage import PersistenceAdapter, StorageKeys

logger = get_logger(__name__)


class DashboardState:
    """Tracks the active admin section and the entity/user selected in it."""

    def __init__(self, persistence: PersistenceAdapter, initial_section: Optional[str] = None):
        self._persistence = persistence
        self.current_section: Optional[str] = (
            persistence.load_string(StorageKeys.DASHBOARD_SECTION) or initial_section
        )
        self.selected_entity_id: Optional[str] = persistence.load_string(StorageKeys.SELECTED_ENTITY)
        self.selected_user_id: Optional[str] = persistence.load_string(StorageKeys.SELECTED_USER)

    def change_section(self, section: Optional[str], entity_id: Optional[str] = None) -> None:
        """
        Switch to section.

        An entity_id given is selected; without one the previous selection is
        kept when staying in the same section and cleared otherwise.
        """
        section_changed = section != self.current_section
        self.current_section = section

        if section:
            self._persistence.save_string(StorageKeys.DASHBOARD_SECTION, section)
        else:
            self._persistence.remove(StorageKeys.DASHBOARD_SECTION)

        if entity_id:
            self.selected_entity_id = entity_id
            self._persistence.save_string(StorageKeys.SELECTED_ENTITY, entity_id)
        elif section_changed:
            self.selected_entity_id = None
            self._persistence.remove(StorageKeys.SELECTED_ENTITY)

        logger.debug(f"Dashboard section -> {loggable(section)}")

    def set_selected_user_id(self, user_id: Optional[str]) -> None:
        self.selected_user_id = user_id
        if user_id:
            self._persistence.save_string(StorageKeys.SELECTED_USER, user_id)
        else:
            self._persistence.remove(StorageKeys.SELECTED_USER)
