"""User-facing strings.

``tr(key, *args)`` looks the key up and fills ``{}`` placeholders with the
positional arguments. Unknown keys are returned unchanged so a missing string
shows up as its key instead of crashing the UI.
"""

from logger import get_logger

log = get_logger("i18n")

STRINGS = {
    "app_title": "Parut",
    "dialog_hint": "Note",
    "dialog_confirm": "Confirm",
    "single_instance_error": "Parut could not start its single-instance server.",
    "msg_paru_missing": "paru was not found in PATH. Searching and installing packages will not work until it is installed.",

    # Tabs
    "tab_dashboard": "Dashboard",
    "tab_search": "Search",
    "tab_installed": "Installed",
    "tab_updates": "Updates",
    "tab_updates_count": "Updates ({})",
    "tab_watchlist": "Watchlist",
    "tab_details": "Details",
    "tab_comments": "AUR comments",
    "tab_comments_count": "AUR comments ({})",

    # Menus
    "menu_actions": "&Actions",
    "menu_settings": "&Settings",
    "menu_help": "&Help",
    "menu_shortcuts": "Keyboard shortcuts",
    "action_refresh": "Refresh",
    "action_settings": "Preferences...",
    "action_quit": "Quit",
    "action_open_log": "Open log folder",

    # Buttons
    "btn_all": "All",
    "btn_official": "Official",
    "btn_aur": "AUR",
    "btn_refresh": "Refresh",
    "btn_cancel": "Cancel",
    "btn_check_updates": "Check for updates",
    "btn_system_update": "Update system",
    "btn_system_cleanup": "System cleanup",
    "btn_show_queue": "Task queue",
    "btn_install": "Install",
    "btn_install_selected": "Install selected",
    "btn_remove": "Remove",
    "btn_remove_selected": "Remove selected",
    "btn_details": "Details",
    "btn_watch": "Watch",
    "btn_unwatch": "Unwatch",
    "btn_update_all": "Update all",
    "btn_update_selected": "Update selected",
    "btn_copy_all": "Copy all",

    # Tables
    "table_package": "Package",
    "table_version": "Version",
    "table_installed": "Installed",
    "table_repository": "Repository",
    "table_description": "Description",
    "label_installed": "installed",
    "sort_name_asc": "Name (A-Z)",
    "sort_name_desc": "Name (Z-A)",
    "sort_repository": "Repository",
    "scope_all": "All sources",
    "scope_repo-only": "Official repositories only",
    "scope_aur-only": "AUR only",

    # Context menus
    "ctx_show_details": "Show details",
    "ctx_install_item": "Install {}",
    "ctx_remove_item": "Remove {}",
    "ctx_update_item": "Update {}",
    "ctx_watch": "Add to watchlist",
    "ctx_unwatch": "Remove from watchlist",

    # Dashboard
    "dashboard_overview": "Overview",
    "dashboard_installed": "Installed packages",
    "dashboard_aur": "From the AUR",
    "dashboard_updates": "Available updates",
    "dashboard_watchlist": "Watched packages",
    "dashboard_queue": "Task queue",
    "dashboard_news": "Arch Linux news",
    "news_loading": "Loading news...",
    "news_failed": "Could not load the news feed: {}",

    # Search
    "search_placeholder": "Search packages (at least 2 characters)",
    "search_info_start": "Type to search the repositories and the AUR.",
    "search_suggestions": "Recent: {}  |  Trending: {}",
    "search_running": "Searching for \"{}\"...",
    "search_results": "{} results for \"{}\"",
    "search_no_results": "No packages found for \"{}\"",
    "search_failed": "Search failed: {}",

    # Installed
    "installed_filter_placeholder": "Filter installed packages",
    "installed_count": "{} packages installed",
    "msg_installed_failed": "Could not load installed packages: {}",

    # Updates
    "updates_show_from": "Show updates from:",
    "updates_checking": "Checking for updates...",
    "updates_available": "{} updates available",
    "updates_none": "Your system is up to date",
    "updates_failed": "Update check failed: {}",
    "updates_failed_cached": "Update check failed, showing cached data: {}",
    "notify_updates_title": "Parut Updates Available",
    "notify_updates_body": "{} package updates are available",

    # Watchlist
    "watchlist_info": "Packages you watch are listed here with their install and update state.",
    "watchlist_not_installed": "not installed",
    "msg_watch_added": "{} added to the watchlist",
    "msg_watch_removed": "{} removed from the watchlist",

    # Status bar
    "freshness_never": "No data synced yet",
    "msg_settings_saved": "Settings saved",
    "msg_link_copied": "Link copied to the clipboard",
    "msg_command_failed": "{} failed: {}",
    "msg_more_errors": "(+{} more)",
    "msg_task_queued": "Queued: {} {}",
    "msg_task_failed": "{} failed: {}",
    "msg_nothing_to_install": "The selected packages are already installed",

    # Confirmations
    "msg_remove_confirm": "Remove {} and its unneeded dependencies?",
    "msg_batch_remove_confirm": "Remove {} packages?\n\n{}",
    "msg_batch_install_confirm": "Install {} packages?\n\n{}",
    "msg_update_all_confirm": "Update the system now? {} updates are pending.",
    "msg_update_all_confirm_unknown": "Update the system now?",
    "msg_clean_cache_confirm": "Remove cached packages that are no longer installed?",
    "msg_remove_orphans_confirm": "Remove packages that are no longer required by anything?",
    "msg_quit_running": "Tasks are still running. Cancel them and quit?",

    # Password prompt
    "dialog_password_title": "Authentication required",
    "dialog_password_prompt": "Password:",

    # Package dialogs
    "dialog_details_title": "Package details: {}",
    "details_loading": "Loading package details...",
    "details_loading_comments": "Loading comments...",
    "details_no_comments": "No comments yet.",
    "details_comments_failed": "Could not load AUR comments: {}",
    "msg_no_details": "No details available for {}.",
    "dialog_pkgbuild_title": "Review PKGBUILD: {}",
    "pkgbuild_review_hint": "AUR packages are built from user-submitted scripts. Read the PKGBUILD before installing.",
    "pkgbuild_loading": "Loading PKGBUILD...",
    "pkgbuild_failed": "Could not load the PKGBUILD of {}:\n\n{}",

    # Cleanup
    "dialog_cleanup_title": "System cleanup",
    "cleanup_dialog_intro": "Select the maintenance tasks to queue.",
    "cleanup_option_clean_cache": "Clean the package cache",
    "cleanup_option_remove_orphans": "Remove orphaned packages",
    "cleanup_estimate_loading": "Estimating reclaimable space...",
    "cleanup_estimate": "Package cache: {}\nparu clone directory: {}\nOrphaned packages: {}\nTotal: {}",
    "cleanup_estimate_failed": "Could not estimate the reclaimable space: {}",

    # Queue window
    "queue_window_title": "Task queue",
    "queue_idle": "No active tasks",
    "queue_summary": "{} running, {} queued, {} failed",
    "queue_system": "(system)",
    "queue_output_placeholder": "Select a task to see its output.",
    "queue_col_type": "Task",
    "queue_col_package": "Package",
    "queue_col_status": "Status",
    "queue_col_phase": "Phase",
    "queue_col_progress": "Progress",
    "queue_col_elapsed": "Elapsed",
    "queue_col_error": "Error",
    "queue_btn_cancel": "Cancel",
    "queue_btn_up": "Move up",
    "queue_btn_down": "Move down",
    "queue_btn_run_now": "Run next",
    "queue_btn_retry": "Retry",
    "queue_btn_clear": "Clear finished",
    "status_queued": "Queued",
    "status_running": "Running",
    "status_completed": "Completed",
    "status_canceled": "Canceled",
    "status_failed": "Failed",

    # Shortcuts
    "shortcut_column_key": "Key",
    "shortcut_column_action": "Action",
    "shortcut_focus_search": "Focus the search field",
    "shortcut_refresh": "Refresh package lists",
    "shortcut_update_system": "Update the system",
    "shortcut_show_queue": "Show the task queue",
    "shortcut_switch_tab": "Switch tabs",
    "shortcut_clear_search": "Clear the search field",
    "shortcut_open_settings": "Open the settings",

    # Settings dialog
    "settings_dialog_title": "Parut settings",
    "settings_btn_reset": "Reset to defaults",
    "settings_btn_save": "Save",
    "settings_reset_title": "Reset settings",
    "settings_reset_message": "Reset all settings to their default values?",
    "settings_reset_done_title": "Settings reset",
    "settings_reset_done_message": "All settings were reset to their defaults.",
    "settings_tab_general": "General",
    "settings_tab_search": "Search & lists",
    "settings_tab_confirm": "Confirmations",
    "settings_tab_updates": "Updates",
    "settings_tab_tasks": "Tasks & logging",
    "settings_tab_dashboard": "Dashboard",
    "settings_notifications_group": "Notifications",
    "settings_notifications_enabled": "Enable desktop notifications",
    "settings_notify_complete": "Notify when a task completes",
    "settings_notify_failed": "Notify when a task fails",
    "settings_startup_group": "Startup",
    "settings_check_updates_on_startup": "Check for updates on startup",
    "settings_startup_tab": "Start on tab:",
    "settings_refresh_group": "Refresh",
    "settings_auto_refresh": "Refresh automatically:",
    "settings_refresh_off": "Off",
    "settings_refresh_15m": "Every 15 minutes",
    "settings_refresh_30m": "Every 30 minutes",
    "settings_refresh_1h": "Every hour",
    "settings_refresh_6h": "Every 6 hours",
    "settings_refresh_on_reconnect": "Refresh when the network reconnects",
    "settings_cache_ttl": "Show cached lists for:",
    "settings_cache_ttl_never": "Always",
    "settings_search_info": "Search results are ranked by name match; typos fall back to a prefix search.",
    "settings_result_limit": "Maximum search results:",
    "settings_sort_search": "Default sort for search:",
    "settings_sort_installed": "Default sort for installed:",
    "settings_show_sizes": "Show package sizes in the details dialog",
    "settings_details_single_click": "Open details with a single click",
    "settings_external_browser": "Open links in the external browser",
    "settings_confirm_info": "Choose which actions ask before they are queued.",
    "settings_confirm_actions": "Always ask for confirmation",
    "settings_confirm_remove": "Removing a package",
    "settings_confirm_update_all": "Updating the system",
    "settings_confirm_clean_cache": "Cleaning the package cache",
    "settings_confirm_remove_orphans": "Removing orphaned packages",
    "settings_confirm_batch_install": "Installing several packages",
    "settings_confirm_batch_remove": "Removing several packages",
    "settings_aur_review_group": "AUR review",
    "settings_pkgbuild_required": "Review the PKGBUILD before installing AUR packages",
    "settings_pkgbuild_always": "Always show the PKGBUILD for AUR packages",
    "settings_show_updates_from": "Show updates from:",
    "settings_update_scope": "System update scope:",
    "settings_ignored_updates": "Ignored packages:",
    "settings_ignored_updates_hint": "Comma separated package names. They are hidden from the update list and passed to paru with --ignore.",
    "settings_tasks_info": "Embedded mode runs paru inside Parut and asks for passwords in a dialog. Terminal mode opens an external terminal.",
    "settings_execution_mode": "Run tasks:",
    "settings_execution_embedded": "Embedded",
    "settings_execution_terminal": "In a terminal",
    "settings_terminal_preference": "Terminal:",
    "settings_max_parallel": "Parallel tasks:",
    "settings_output_limit": "Output lines kept per task:",
    "settings_auto_clear": "Clear finished tasks after:",
    "settings_auto_clear_off": "Never",
    "settings_logging_group": "Logging",
    "settings_log_level": "Log level:",
    "settings_log_size": "Maximum log size:",
    "settings_show_news": "Show Arch Linux news on the dashboard",
    "settings_news_items": "News items:",
    "settings_news_dates": "Show publication dates",
}


def tr(key: str, *args) -> str:
    text = STRINGS.get(key)
    if text is None:
        log.debug("Missing string: %s", key)
        return key
    if args:
        try:
            return text.format(*args)
        except (IndexError, KeyError, ValueError):
            log.warning("Bad arguments for string %s: %r", key, args)
            return text
    return text
