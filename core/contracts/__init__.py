"""core.contracts

Central, stable interfaces (ABCs) for the collaborators that live outside the
approval pipeline: role storage, audit persistence and notification delivery.

Features depend on these contracts, not on concrete implementations. This
package contains only interfaces and shared type definitions.
"""
